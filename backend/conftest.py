import sys
import os

# Handlers import their siblings as top-level packages (common, models, customLogging, handlers)
backend_root = os.path.dirname(os.path.abspath(__file__))
sys.path.append(backend_root)
sys.path.append(os.path.join(backend_root, 'backend'))

# Set environment variables for testing
os.environ['AWS_REGION'] = 'us-east-1'
os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'
os.environ['INDEX_STORAGE_TABLE_NAME'] = 'example-index-table'
os.environ['POWERTOOLS_SERVICE_NAME'] = 'bucket-index-tests'
os.environ['POWERTOOLS_LOG_LEVEL'] = 'DEBUG'

# Deployment settings must not leak into tests from the shell
os.environ.pop('DYNAMO_TABLE_ARN', None)
os.environ.pop('DYNAMO_TABLE_REGION', None)
os.environ.pop('INDEX_WRITE_STRATEGY', None)
os.environ.pop('INDEX_ERROR_POLICY', None)
os.environ.pop('INDEX_CONDITIONAL_WRITE_ATTEMPTS', None)
os.environ.pop('INDEX_STORAGE_TABLE_REGION', None)

# AWS credentials for testing
os.environ['AWS_ACCESS_KEY_ID'] = 'test-access-key'
os.environ['AWS_SECRET_ACCESS_KEY'] = 'test-secret-key'
os.environ['AWS_SESSION_TOKEN'] = 'test-session-token'
