from skate import create_app, socketio
from skate.services.matches.reconciler import start_reconciler

app = create_app()

if __name__ == '__main__':
    # Deadline forfeits and warnings run alongside the Socket.IO dev server
    start_reconciler(app)
    socketio.run(app, debug=True)
