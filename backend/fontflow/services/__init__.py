# Services package init
"""
FontFlow Backend — Services Layer
===================================

What:  Business logic between the routes (HTTP) and persistence (database, object storage).
How:   Detection, transcoding and CSS rendering are pure functions; FontService
       composes them with an injected ObjectStore and the request's session.

Service Inventory:
    - font_detector:    signature sniffing, table directory validation, metadata
    - font_transcoder:  TTF / OTF / WOFF → WOFF2 (None when conversion fails)
    - storage:          ObjectStore contract with S3 and local filesystem backends
    - css_service:      @font-face stylesheet rendering
    - font_service:     upload → detect → store → transcode → persist, reads, delete
"""
