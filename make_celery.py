import os
from dotenv import load_dotenv

load_dotenv(override=False)

from carrental import create_app  # noqa
from carrental.config import configs as config  # noqa

config_name = os.environ.get("FLASK_CONFIG") or "develop"
config_app = config[config_name]
flask_app = create_app(config_app)
celery_app = flask_app.extensions["celery"]
