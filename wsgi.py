# wsgi.py
import os

from awayline import create_app

application = create_app(os.getenv('FLASK_ENV', 'production'))
app = application

if __name__ == "__main__":
    app.run(debug=False, host='0.0.0.0', port=int(os.getenv('PORT', 5000)))
