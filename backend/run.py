import os

from royale import create_app, socketio

app = create_app()

if __name__ == '__main__':
    socketio.run(
        app,
        host=os.environ.get('ROYALE_HOST', '0.0.0.0'),
        port=int(os.environ.get('PORT', 5000)),
        debug=True,
    )
