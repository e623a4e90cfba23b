from vyapaar import create_app

app = create_app()
