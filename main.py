#!/usr/bin/env python3
"""
Development entry point for the Meetpoint API
"""

import os

from meetpoint.app import app

if __name__ == '__main__':
    try:
        port = int(os.getenv('PORT', '5001'))
    except ValueError:
        port = 5001
    app.run(debug=True, host=os.getenv('HOST', '0.0.0.0'), port=port)
