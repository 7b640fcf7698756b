# app/core/config.py

import os # 'os' 모듈: 환경 변수를 읽기 위해 사용합니다.

class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 서명 키. 게시글 작성자 정보(identity, email, display_name 클레임)를 읽는 데 사용됩니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    # 게시글 저장소 백엔드: 'firestore' 또는 'memory'
    POST_STORE_BACKEND = os.getenv('POST_STORE_BACKEND', 'firestore')
    POSTS_COLLECTION = os.getenv('POSTS_COLLECTION', 'posts')
    # 인메모리 저장소를 쓸 때 초기 데이터로 적재할 JSON 파일 경로 (로컬 개발용, 선택)
    MEMORY_STORE_SEED_PATH = os.getenv('MEMORY_STORE_SEED_PATH')

    # 페이지 크기 기본값 / 상한
    DEFAULT_PAGE_SIZE = int(os.getenv('DEFAULT_PAGE_SIZE', 5))
    DEFAULT_CATEGORY_PAGE_SIZE = int(os.getenv('DEFAULT_CATEGORY_PAGE_SIZE', 20))
    DEFAULT_SUBSCRIBE_LIMIT = int(os.getenv('DEFAULT_SUBSCRIBE_LIMIT', 20))
    MAX_PAGE_SIZE = int(os.getenv('MAX_PAGE_SIZE', 50))

    # 조회 캐시 유지 시간(초). 쓰기 성공 시에는 시간과 관계없이 무효화됩니다.
    QUERY_CACHE_TTL_SECONDS = float(os.getenv('QUERY_CACHE_TTL_SECONDS', 60))
    # 실시간 스트림(SSE) keep-alive 주기(초)
    SSE_KEEPALIVE_SECONDS = float(os.getenv('SSE_KEEPALIVE_SECONDS', 15))

class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다. Config 클래스를 상속받아 공통 설정을 그대로 사용합니다."""
    DEBUG = True
    # 개발용 Firebase 프로젝트에 연결하기 위한 서비스 계정 키 파일 경로
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH')

class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    # 테스트는 기본적으로 Firebase 없이 인메모리 저장소를 사용합니다.
    POST_STORE_BACKEND = os.getenv('TEST_POST_STORE_BACKEND', 'memory')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'test-secret-key-with-enough-length-for-hs256')

# config_by_name: 문자열 키('development', 'testing')와 해당 환경의 설정 클래스를 매핑하는 딕셔너리입니다.
# app/__init__.py의 create_app 함수에서 FLASK_ENV 값에 따라 적절한 설정을 선택하는 데 사용됩니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig
)
