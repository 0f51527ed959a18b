"""Orders: DTOs, in-memory repository, service and handler."""