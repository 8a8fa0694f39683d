"""Flask extensions, instantiated once and bound in the application factory."""
from flask_babel import Babel
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
babel = Babel()
