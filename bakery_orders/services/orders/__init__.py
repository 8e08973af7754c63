"""Order and quote lifecycle: status machine, audit log, persistence and service."""
