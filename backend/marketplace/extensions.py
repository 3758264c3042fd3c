# Overview: Flask extension instances for database, migrations and object storage.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.storage_service import ObjectStorage

db = SQLAlchemy()
migrate = Migrate()
storage = ObjectStorage()
