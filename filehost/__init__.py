"""
File hosting service for user-uploaded CSS/JS assets.

Uploads are validated, CSS is minified, content is written to an
S3-compatible bucket and indexed in a relational table. The package also
exposes the browser editor round-trip and the admin surface as a FastAPI
application.
"""
