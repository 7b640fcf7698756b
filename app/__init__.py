# app/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from marshmallow import ValidationError
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException
import firebase_admin
from firebase_admin import credentials

# - 설정 / 예외
from app.core.config import config_by_name
from app.core.exceptions import NotFoundError, WriteError

# - API 블루프린트
from app.api.posts.routes import posts_bp

# - 서비스 모듈
from app.api.posts.repository import PostRepository
from app.api.posts.services import PostMutationService
from app.services.notification_service import NotificationService
from app.services.query_cache import QueryCache
from app.store.firestore_store import FirestoreDocumentStore
from app.store.memory_store import InMemoryDocumentStore


def _create_post_store(app: Flask):
    """설정(POST_STORE_BACKEND)에 따라 게시글 문서 저장소를 생성합니다."""
    backend = app.config['POST_STORE_BACKEND']

    if backend == 'memory':
        store = InMemoryDocumentStore()
        seed_path = app.config.get('MEMORY_STORE_SEED_PATH')
        if seed_path:
            store.load_seed(seed_path)
        return store

    if backend == 'firestore':
        if not firebase_admin._apps:
            cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
            if not cred_path or not os.path.exists(cred_path):
                raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)
        return FirestoreDocumentStore(collection_name=app.config['POSTS_COLLECTION'])

    raise ValueError(f"지원하지 않는 POST_STORE_BACKEND 입니다: {backend}")


def create_app(config_name: str = None):
    """
    Flask 애플리케이션 팩토리 함수.
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    JWTManager(app)

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 다른 서비스의 기반이 되는 공용/핵심 서비스 먼저 생성
    try:
        app.services['post_store'] = _create_post_store(app)
        logging.info(f"Post store initialized successfully ({app.config['POST_STORE_BACKEND']})")
    except Exception as e:
        logging.error(f"Failed to initialize post store: {e}")
        raise

    app.services['notifications'] = NotificationService()
    app.services['query_cache'] = QueryCache(ttl_seconds=app.config['QUERY_CACHE_TTL_SECONDS'])

    # 5-2. 다른 서비스를 주입받아야 하는 도메인 서비스 생성
    app.services['post_repository'] = PostRepository(app.services['post_store'])
    app.services['post_mutations'] = PostMutationService(
        repository=app.services['post_repository'],
        cache=app.services['query_cache'],
        notifications=app.services['notifications']
    )

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(posts_bp, url_prefix='/api/posts')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(err):
        return jsonify({"error_code": err.error_code, "message": "게시물을 찾을 수 없습니다."}), 404

    @app.errorhandler(WriteError)
    def handle_write_error(err):
        logging.error(f"게시글 쓰기 실패 ({err.operation}): {err}", exc_info=True)
        return jsonify({"error_code": err.error_code, "message": err.message}), 500

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        if isinstance(err, HTTPException):
            return err
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
