"""Stock keeping: DTOs, in-memory repository, service and handler."""