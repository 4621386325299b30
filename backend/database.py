from motor.motor_asyncio import AsyncIOMotorClient

from config.env import MONGO_URI

client = AsyncIOMotorClient(MONGO_URI)
db = client.get_default_database("ecofinds")

def get_db():
    return db
