#!/usr/bin/env python3
"""
Start the Company Mapper API with uvicorn.
Honours the PORT environment variable (default 8000).
"""
import os

import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))

    print(f"Starting Company Mapper on port {port}")

    uvicorn.run(
        "company_mapper.main:app",
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
