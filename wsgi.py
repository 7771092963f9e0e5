"""
WSGI entry point for the CRM Atlas API.

    gunicorn wsgi:app
"""
import os

from crm_atlas import create_app

app = create_app()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)), debug=os.getenv('FLASK_DEBUG') == '1')
