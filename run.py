# run.py
from dotenv import load_dotenv
import os
basedir = os.path.abspath(os.path.dirname(__file__))
# 이 파일이 있는 디렉터리의 '.env' 파일을 먼저 로드합니다.
dotenv_path = os.path.join(basedir, '.env')
load_dotenv(dotenv_path=dotenv_path)

from cms import create_app

app = create_app()

if __name__ == '__main__':
    host = os.getenv('FLASK_RUN_HOST', '127.0.0.1')
    port = int(os.getenv('FLASK_RUN_PORT', 5000))
    debug = app.config.get('DEBUG', False)
    # 디버그 리로더는 프로세스를 두 번 띄워 구독도 두 번 열리므로 끕니다.
    app.run(host=host, port=port, debug=debug, use_reloader=False)
