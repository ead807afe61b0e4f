"""
Bayanihan Map - Vercel Serverless Entry Point
Serves the report ingestion API and the map feed
"""

import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.api.main import app

# Vercel serverless handler
handler = app
