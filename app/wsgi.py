from app.taskmanager import create_app

app = create_app()
