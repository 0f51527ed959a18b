"""Product categories: DTOs, in-memory repository, service and handler."""