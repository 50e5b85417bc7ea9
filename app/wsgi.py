from app.corpsite import create_app

app = create_app()
