"""API test execution: request building, HTTP execution, assertions and run recording.

Pipeline: RequestBuilder -> APIHttpClient -> normalize -> AssertionEngine -> RunRecorder,
driven by APITestEngine in apiprobe.services.api_testing.engine.
"""
