#!/usr/bin/env python3
"""
The Vault Backend - Main Entry Point
Production entry point; creates tables before serving
"""

import os

from app import app, db

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))

    with app.app_context():
        db.create_all()

    app.logger.info(f"The Vault API listening on port {port} (storage: {app.config['STORAGE_MODE']})")
    app.run(host='0.0.0.0', port=port, debug=False)
