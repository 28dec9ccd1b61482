from app.breakroom import create_app

app = create_app()
