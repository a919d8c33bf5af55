"""Celery 配置文件"""

from celery import Celery

from app.core.config import settings

# 创建 Celery 应用实例
app = Celery('inventory_worker', include=['tasks.inventory_tasks'])

# 配置 Redis 作为 broker 和 backend
app.conf.broker_url = settings.CELERY_BROKER_URL
app.conf.result_backend = settings.CELERY_RESULT_BACKEND

# 任务序列化配置
app.conf.task_serializer = 'json'
app.conf.result_serializer = 'json'
app.conf.accept_content = ['json']

# 时区配置
app.conf.timezone = 'UTC'
app.conf.enable_utc = True

# 任务路由配置
app.conf.task_routes = {
    'tasks.inventory.*': {'queue': 'inventory'},
}

# Worker 配置
app.conf.worker_prefetch_multiplier = 1
app.conf.task_acks_late = True

# 定时清理过期预占（间隔 <= 0 时不注册）
if settings.RESERVATION_SWEEP_INTERVAL_SECONDS > 0:
    app.conf.beat_schedule = {
        'release-expired-reservations': {
            'task': 'tasks.inventory.release_expired_reservations',
            'schedule': settings.RESERVATION_SWEEP_INTERVAL_SECONDS,
            'kwargs': {'batch_size': settings.SWEEP_BATCH_SIZE},
        },
    }

# 导出应用实例
__all__ = ['app']
