def init_celery(app, celery_app):
    """
    Configures the global celery_app from the CELERY_* keys of Flask's config.
    """
    # CELERY_BROKER_URL -> broker_url, CELERY_TASK_ALWAYS_EAGER -> task_always_eager
    celery_app.conf.update(app.config.get_namespace('CELERY_'))

    # Tasks run inside the app context so they can use mail/db like a request does
    class ContextTask(celery_app.Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app.Task = ContextTask
    celery_app.main = app.import_name
    return celery_app
