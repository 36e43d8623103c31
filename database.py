"""
MongoDB connection.

MongoClient connects lazily, so importing this module does not require a
running server.
"""

from pymongo import MongoClient
from pymongo.database import Database

from config import DATABASE_URL, DATABASE_NAME

client = MongoClient(DATABASE_URL)
db = client[DATABASE_NAME]


def get_db() -> Database:
    return db
