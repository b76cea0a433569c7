# Heroku entry point - delegates to backend/app.py
import importlib.util
import sys
import os

# Add backend directory to Python path so its modules import each other
backend_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'backend')
sys.path.insert(0, backend_path)

# Load backend/app.py under its own name; this module is itself called `app`
spec = importlib.util.spec_from_file_location('backend_app', os.path.join(backend_path, 'app.py'))
backend_app = importlib.util.module_from_spec(spec)
spec.loader.exec_module(backend_app)
app = backend_app.create_app()

if __name__ == '__main__':
    # Heroku sets PORT environment variable
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_ENV') == 'development'

    app.run(host='0.0.0.0', port=port, debug=debug)
