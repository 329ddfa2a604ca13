"""
Real-time fan-out: tenant topic registry, broadcast router and the
Socket.IO gateway.
"""
