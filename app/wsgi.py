from app.rtims import create_app

app = create_app()
