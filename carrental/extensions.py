# coding: utf8
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from celery import Celery


db = SQLAlchemy()

celery = None


def make_celery(app: Flask) -> Celery:
    global celery

    celery = Celery(
        app.import_name,
        broker=app.config["CELERY_BROKER_URL"],
        backend=app.config["CELERY_RESULT_BACKEND"],
        include=["carrental.tasks.booking_tasks"],
    )
    celery.conf.update(
        task_always_eager=app.config.get("CELERY_TASK_ALWAYS_EAGER", False),
        task_ignore_result=True,
    )

    class ContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask
    return celery
