"""Main Flask WSGI application hosting the remote record store API."""

import logging

from config import load_config
from views import create_app

config = load_config()

logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO),
                    format='[%(levelname)s] %(name)s: %(message)s')

app, repository = create_app(testing=False)

if __name__ == '__main__':
    app.run(port=config.port, debug=config.debug)
