"""
测试模块

测试结构:
- unit/: 事件流解码、事件转换、请求转换、凭据、上游客户端、配置
- integration/: 通过 TestClient 调用完整的 FastAPI 应用
- fixtures.py: 事件流构造工具和样例负载
"""
