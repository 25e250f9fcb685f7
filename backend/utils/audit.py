from sqlalchemy.orm import Session
from models.log import Log, AUDIT_SUCCESS

def write_log(db: Session, *, user_id, action, resource, status=AUDIT_SUCCESS, ip=None, meta=None):
    entry = Log(user_id=user_id, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    db.add(entry)
    db.commit()

def client_ip(request):
    # TestClient and some proxies leave request.client unset
    if request is None or request.client is None:
        return None
    return request.client.host
