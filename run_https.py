"""
Procto API runner
Usage: python run_https.py [cert_file key_file] [port]

Without a certificate pair the server runs plain HTTP.
"""
import os
import ssl
import sys
from procto import create_app


def main():
    args = sys.argv[1:]
    context = None

    if len(args) >= 2 and os.path.isfile(args[0]):
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(args[0], args[1])
        args = args[2:]

    port = int(args[0]) if args else int(os.getenv("PORT", "8000"))

    app = create_app()

    print(f"Starting Procto API on port {port} ({'https' if context else 'http'})...")
    app.run(host='0.0.0.0', port=port, ssl_context=context, debug=False, use_reloader=False)


if __name__ == '__main__':
    main()
