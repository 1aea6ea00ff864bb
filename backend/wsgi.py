from explorer import create_app


app = create_app()
