import os, sys, pytest
# Ensure backend directory is on path so 'serviceops' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from serviceops import create_app, get_db
from serviceops.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import serviceops.models.audit  # noqa: F401
import serviceops.models.targets  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'PERMISSION_SOURCE': 'local', 'JWT_SECRET_KEY': 'test-secret-key-with-enough-length'})
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def fresh_permission_cache(app_instance):
    # tests seed the store directly, bypassing the invalidating code paths
    app_instance.extensions['permission_cache'].invalidate_all()
    yield


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
