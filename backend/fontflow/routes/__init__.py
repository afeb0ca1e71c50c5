# Routes package init
"""
FontFlow Backend — API Routes Package
=======================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - fonts.py:   POST   /api/fonts/upload        (upload, detect, transcode, record)
                  GET    /api/fonts               (list own fonts)
                  GET    /api/fonts/css           (@font-face stylesheet)
                  GET    /api/fonts/{id}          (single font with signed URLs)
                  GET    /api/fonts/{id}/file     (download original or WOFF2)
                  DELETE /api/fonts/{id}          (remove record and objects)
    - files.py:   GET    /api/files/{key}         (signed local-storage downloads)
    - health.py:  GET    /health                  (database + storage status)

Routes are thin: they extract request data, resolve the user and the object
store through dependencies, call FontService and pick the status code.
"""
