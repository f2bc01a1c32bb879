from models.db_storage import DBStorage

# Process-wide storage; the app factory calls storage.configure() + storage.reload()
storage = DBStorage()
