"""
Media upload microservice package.

Accepts uploaded images and videos for restaurant entities, derives
high/medium/low image variants plus a blurhash placeholder, stores the results
in S3 and reports the resulting URLs to the main server.
"""
