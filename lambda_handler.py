from mangum import Mangum
from main import app

# AWS Lambda entrypoint using API Gateway HTTP API. API Gateway buffers the
# response, so /api/session/{id}/submit arrives in one piece there. Sessions live
# in process memory and only survive while the function instance stays warm.
handler = Mangum(app)
