# manage.py

import os
from ideamarket import create_app

# Create an app instance for the context
app = create_app(os.getenv('FLASK_CONFIG') or 'dev')

if __name__ == '__main__':
    # This allows running 'python manage.py init-db' from the command line
    with app.app_context():
        app.cli()
