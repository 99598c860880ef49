from pymongo import MongoClient

from ..utils.logger import Log


class MongoDB:
    def __init__(self):
        self.client = None
        self.db = None

    def init_app(self, app, database=None):
        """
        Bind the document store for this process.

        `database` lets the composition root hand in an already-built database
        handle (tests pass an in-memory stand-in); otherwise a MongoClient is
        created from MONGO_URI.
        """
        if database is not None:
            self.db = database
        else:
            uri = app.config["MONGO_URI"]
            db_name = app.config.get("MONGO_DB_NAME", "store_pos")
            self.client = MongoClient(uri, serverSelectionTimeoutMS=5000, tz_aware=False)
            self.db = self.client[db_name]
            Log.info(f"[db.py][MongoDB][init_app] Connected to database '{db_name}'")

        app.mongo = self.db

    def get_collection(self, name):
        if self.db is None:
            raise RuntimeError("MongoDB not initialized")
        return self.db[name]

    def close(self):
        if self.client is not None:
            self.client.close()
            self.client = None


db = MongoDB()
