import logging
import os
import secrets

from dotenv import load_dotenv
from flask import Flask
from flask_migrate import Migrate

from database import db

load_dotenv()

TRUTHY_VALUES = {"1", "true", "t", "yes", "y", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY_VALUES


def _database_uri() -> str:
    uri = os.environ.get("DATABASE_URL", "").strip() or "sqlite:///projecthierarchy.db"
    # Heroku/Render style URLs are not accepted by SQLAlchemy 2.x
    if uri.startswith("postgres://"):
        uri = "postgresql://" + uri[len("postgres://"):]
    return uri


logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = _database_uri()
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY") or secrets.token_hex(32)
app.config["PROJECT_QUOTA_GUEST"] = int(os.environ.get("PROJECT_QUOTA_GUEST", 3))
app.config["PROJECT_QUOTA_STANDARD"] = int(os.environ.get("PROJECT_QUOTA_STANDARD", 12))
app.config["PROJECTS_REQUIRE_EXISTING_PARENT"] = _env_flag("PROJECTS_REQUIRE_EXISTING_PARENT")

db.init_app(app)

# Models import should be after initializing db
from models.icon import Icon
from models.project import Project
from models.task import Task
from models.user import User

# Create flask command lines to update the db based on the model
# Useage:
# Create a migration script in ./migrations/versions
# > flask db migrate -m "Update comments"
# Run the update
# > flask db upgrade
migrate = Migrate(app, db)

__all__ = ["app", "db", "migrate", "Icon", "Project", "Task", "User"]
