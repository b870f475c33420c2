"""
Feature modules live under this package.

Each module owns its routes and templates and goes through the backend gateway
(app.rtims.backend) for every read and write.
"""
