import unittest

from ccboard.analysis.rules import ERROR_RULES, classify_error


class ErrorClassifierTests(unittest.TestCase):
    def test_each_rule_matches_its_own_patterns(self) -> None:
        # "unresolved" also contains "resolve", which an earlier Network rule claims
        shadowed = {"unresolved": "Network"}
        for rule in ERROR_RULES:
            for pattern in rule.patterns:
                with self.subTest(pattern=pattern):
                    result = classify_error(f"prefix {pattern} suffix")
                    if pattern in shadowed:
                        self.assertEqual(result.category, shadowed[pattern])
                        continue
                    self.assertEqual(result.category, rule.category)
                    self.assertEqual(result.retryable, rule.retryable)
                    self.assertEqual(result.suggestion, rule.suggestion)

    def test_rule_table_order(self) -> None:
        self.assertEqual(len(ERROR_RULES), 12)
        self.assertEqual(
            [rule.category for rule in ERROR_RULES],
            ["Permission", "Permission", "Network", "Network", "Network", "Network",
             "Type", "Type", "Type", "Runtime", "Runtime", "Runtime"],
        )

    def test_known_messages(self) -> None:
        cases = [
            ("permission denied: /etc/shadow", "Permission", False, "Check file permissions"),
            ("Access Denied for resource X", "Permission", False, "Check access rights"),
            ("connection refused: localhost:5432", "Network", True, "Check if service is running"),
            ("request timed out after 30s", "Network", True, "Retry or increase timeout"),
            ("connection timeout", "Network", True, "Retry or increase timeout"),
            ("rate limit exceeded: 429", "Network", True, "Wait and retry"),
            ("DNS lookup failed for api.example.com", "Network", True, "Check network connection"),
            ("could not resolve host", "Network", True, "Check network connection"),
            ("type error: expected i32 got &str", "Type", False, "Fix type annotations"),
            ("module 'foo' not found", "Type", False, "Check imports and paths"),
            ("undefined reference to 'bar'", "Type", False, "Check variable/module names"),
            ("fatal: out of memory allocating 1GB", "Runtime", False, "Reduce memory usage"),
            ("thread 'main' has overflowed its stack overflow", "Runtime", False, "Check for infinite recursion"),
            ("thread 'main' panicked at 'called unwrap on None'", "Runtime", False, "Add proper error handling"),
        ]
        for message, category, retryable, suggestion in cases:
            with self.subTest(message=message):
                result = classify_error(message)
                self.assertEqual(result.category, category)
                self.assertEqual(result.retryable, retryable)
                self.assertEqual(result.suggestion, suggestion)

    def test_case_insensitive(self) -> None:
        self.assertEqual(classify_error("PERMISSION DENIED"), classify_error("permission denied"))
        self.assertEqual(classify_error("PERMISSION DENIED").category, "Permission")

    def test_priority_permission_before_not_found(self) -> None:
        result = classify_error("permission denied: file not found")
        self.assertEqual(result.category, "Permission")
        self.assertEqual(result.suggestion, "Check file permissions")

    def test_priority_network_before_type(self) -> None:
        # "resolve" (rule 6) precedes "unresolved" (rule 9)
        self.assertEqual(classify_error("unresolved import").category, "Network")

    def test_unknown_fallback(self) -> None:
        for message in ("something completely unexpected happened", "", None):
            with self.subTest(message=message):
                result = classify_error(message)
                self.assertEqual(result.category, "Unknown")
                self.assertFalse(result.retryable)
                self.assertEqual(result.suggestion, "Investigate error details")


if __name__ == "__main__":
    unittest.main()
