# Overview: Flask extension instances for database, migrations and signals.

from blinker import Namespace
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

# Fired only after the owning transaction commits.
signals = Namespace()
