"""Models package: exposes the global DBStorage instance as models.storage."""
from models.db_storage import DBStorage

storage = DBStorage()
storage.reload()
