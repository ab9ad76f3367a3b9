from bakeryops import create_app

app = create_app()
