from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect

db = SQLAlchemy()
csrf = CSRFProtect()
migrate = Migrate()

# только персонал (админ, касса); покупатели входят по OTP через flask.session
login_manager = LoginManager()
login_manager.session_protection = "strong"
login_manager.login_message = None
