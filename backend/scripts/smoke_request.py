"""Run a quick request against a running linkhub API.

Uses `ApiClient` with the configured `API_BASE_URL` to hit `/health`
and the first page of the software listing. Failures are logged by the
client's notifier and reported with a non-zero exit code.
"""

import logging
import sys
import os

# Ensure backend folder is on sys.path so `linkhub` package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from linkhub.client import ApiClient, ClientConfig, ClientError


def main() -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    config = ClientConfig.from_settings()
    with ApiClient(config) as client:
        try:
            print('HEALTH:', client.get('/health'))
            page = client.get('/api/management', {'page': 1, 'pageSize': 6})
        except ClientError:
            return 1
    print('SOFTWARE:', page['total'], 'total,', len(page['data']), 'on first page')
    return 0


if __name__ == '__main__':
    sys.exit(main())
