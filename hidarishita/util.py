# hidarishita/util.py

import os

TOKEN_ENV = 'SLACK_API_TOKEN'


def get_data_path():
    path = get_env('HIDARISHITA_DATA_PATH')
    return path.strip() if path else '.'


def get_env(env: str):
    return os.environ.get(env)
