"""Unit tests for pagesift.services.harvest: selector fields and embedded JSON."""

from pagesift.services.harvest import (
    extract_all_images,
    extract_basic_fields,
    extract_element_data,
    extract_sku,
    extract_text_content,
    find_product_objects,
    find_window_state,
    harvest_data_attributes,
    harvest_html_patterns,
    harvest_script_json,
    harvest_typed_json,
    parse_html,
)

BASE = "https://shop.example.com/p/1"


# ---------------------------------------------------------------------------
# Selector fields
# ---------------------------------------------------------------------------


class TestBasicFields:
    """Title, price, sku and product images from fixed selectors."""

    def test_extracts_fields(self):
        html = """
        <html><body>
          <h1>  Trail Runner 2 </h1>
          <span class="price">$129.00</span>
          <div data-sku="TR-2-BLK"></div>
          <img src="/media/product-1.jpg">
          <img src="https://cdn.example.com/product-2.jpg">
          <img src="/logo.png">
        </body></html>
        """
        fields = extract_basic_fields(parse_html(html), base_url=BASE)
        assert fields["title"] == "Trail Runner 2"
        assert fields["price"] == "$129.00"
        assert fields["sku"] == "TR-2-BLK"
        assert fields["images"] == [
            "https://shop.example.com/media/product-1.jpg",
            "https://cdn.example.com/product-2.jpg",
        ]

    def test_missing_fields_are_none(self):
        fields = extract_basic_fields(parse_html("<html><body><p>hi</p></body></html>"))
        assert fields == {"title": None, "price": None, "sku": None, "images": []}

    def test_sku_from_meta(self):
        soup = parse_html('<html><head><meta property="product:sku" content="M-1"></head></html>')
        assert extract_sku(soup) == "M-1"

    def test_sku_from_text(self):
        soup = parse_html('<html><body><span class="sku"> ABC-9 </span></body></html>')
        assert extract_sku(soup) == "ABC-9"


# ---------------------------------------------------------------------------
# Script JSON
# ---------------------------------------------------------------------------


class TestScriptJson:
    """Exhaustive script harvesting used by the header-spoofed fetch."""

    def test_structured_script_keyed_by_id(self):
        html = '<script type="application/ld+json" id="pdp">{"@type": "Product", "name": "X"}</script>'
        blobs = harvest_script_json(parse_html(html))
        assert blobs["structured_pdp"] == {"@type": "Product", "name": "X"}

    def test_structured_script_keyed_by_index(self):
        html = '<script>var a = 1;</script><script type="application/json">{"a": 1}</script>'
        blobs = harvest_script_json(parse_html(html))
        assert blobs == {"structured_1": {"a": 1}}

    def test_invalid_structured_script_skipped(self):
        html = '<script type="application/json">{not json</script>'
        assert harvest_script_json(parse_html(html)) == {}

    def test_window_state(self):
        html = '<script>window.__INITIAL_STATE__ = {"product": {"sku": "123"}};</script>'
        blobs = harvest_script_json(parse_html(html))
        assert blobs == {"window_state_0_0": {"product": {"sku": "123"}}}

    def test_objects_outside_window_state_still_found(self):
        html = (
            '<script>window.__INITIAL_STATE__ = {"product": {"sku": "1"}};'
            ' var x = {"sku": "2", "price": "3"};</script>'
        )
        blobs = harvest_script_json(parse_html(html))
        assert blobs == {
            "window_state_0_0": {"product": {"sku": "1"}},
            "script_json_0_0": {"sku": "2", "price": "3"},
        }

    def test_skip_spans(self):
        content = 'a = {"sku": "1"}; b = {"sku": "2"}'
        span = (content.index("{"), content.index(";"))
        assert find_product_objects(content, skip=[span]) == [{"sku": "2"}]

    def test_deeply_nested_structured_script_skipped(self):
        html = '<script type="application/json">' + "[" * 5000 + "]" * 5000 + "</script>"
        assert harvest_script_json(parse_html(html)) == {}

    def test_deeply_nested_window_state_skipped(self):
        html = (
            '<script>window.__INITIAL_STATE__ = {"product": '
            + "[" * 5000 + "]" * 5000 + "};</script>"
        )
        assert harvest_script_json(parse_html(html)) == {}

    def test_nesting_past_bound_skipped(self):
        deep = '{"a": ' * 100 + "1" + "}" * 100
        html = (
            f'<script type="application/json">{deep}</script>'
            '<script type="application/json" id="ok">{"sku": "1"}</script>'
        )
        assert harvest_script_json(parse_html(html)) == {"structured_ok": {"sku": "1"}}

    def test_inline_product_object(self):
        html = '<script>var x = {"sku": "A1", "price": "9.99"}; function f() { return 1; }</script>'
        blobs = harvest_script_json(parse_html(html))
        assert blobs == {"script_json_0_0": {"sku": "A1", "price": "9.99"}}

    def test_non_product_objects_ignored(self):
        html = '<script>var cfg = {"theme": "dark"}; console.log("price");</script>'
        assert harvest_script_json(parse_html(html)) == {}

    def test_scripts_without_hints_skipped(self):
        html = "<script>var cfg = {sku: 1};</script>"
        assert harvest_script_json(parse_html(html)) == {}

    def test_nested_product_found(self):
        content = 'var s = {"page": {"product": {"title": "T"}}};'
        assert find_product_objects(content) == [{"product": {"title": "T"}}]

    def test_matching_object_consumed_whole(self):
        content = 'x = {"product": {"sku": "1", "price": "2"}}'
        assert find_product_objects(content) == [{"product": {"sku": "1", "price": "2"}}]

    def test_find_window_state_multiple(self):
        content = 'window.a = {"x": 1}; window.b= {"y": 2}; window.c = "str";'
        assert find_window_state(content) == [{"x": 1}, {"y": 2}]


class TestMarkupFallbacks:
    def test_html_patterns(self):
        html = '<div data-x=\'{"sku": "ABC", "price": "1.00"}\'></div>'
        found = harvest_html_patterns(html)
        assert found["html_pattern_1"] == ['"sku": "ABC"']
        assert found["html_pattern_2"] == ['"price": "1.00"']
        assert "html_pattern_0" not in found

    def test_html_patterns_capped(self):
        html = " ".join(f'"sku": "S{i}"' for i in range(25))
        assert len(harvest_html_patterns(html)["html_pattern_1"]) == 10

    def test_data_attributes(self):
        html = '<div data-product-id="7" data-color="red"><span data-price="9"></span></div>'
        attrs = harvest_data_attributes(parse_html(html))
        assert attrs == {
            "DIV_data-product-id": "7",
            "DIV_data-color": "red",
            "SPAN_data-price": "9",
        }

    def test_data_attributes_element_limit(self):
        html = "".join(f'<i data-n="{i}"></i>' for i in range(60))
        attrs = harvest_data_attributes(parse_html(html), limit=50)
        assert attrs == {"I_data-n": "49"}


# ---------------------------------------------------------------------------
# Rendered DOM (browser)
# ---------------------------------------------------------------------------


class TestRenderedDom:
    def test_typed_json_and_ld_json(self):
        html = """
        <script type="application/json" id="state" data-comp="PDP">{"a": 1}</script>
        <script type="application/ld+json">{"@type": "Product"}</script>
        <script type="application/json">{broken</script>
        """
        blobs = harvest_typed_json(parse_html(html))
        assert blobs == {
            "script_state_application/json_PDP": {"a": 1},
            "ld_json_no-id": {"@type": "Product"},
        }

    def test_typed_json_skips_deep_nesting(self):
        deep = "[" * 5000 + "]" * 5000
        html = (
            f'<script type="application/json" id="state">{deep}</script>'
            f'<script type="application/ld+json">{deep}</script>'
            '<script type="application/ld+json" id="pdp">{"@type": "Product"}</script>'
        )
        assert harvest_typed_json(parse_html(html)) == {"ld_json_pdp": {"@type": "Product"}}

    def test_all_images_include_lazy(self):
        html = '<img src="/a.jpg"><img data-src="/b.jpg"><img data-lazy-src="/c.jpg"><img>'
        images = extract_all_images(parse_html(html), base_url=BASE)
        assert images == [
            "https://shop.example.com/a.jpg",
            "https://shop.example.com/b.jpg",
            "https://shop.example.com/c.jpg",
        ]

    def test_element_data(self):
        html = '<div class="swatch red" id="sw1" data-color="red">Red</div>'
        records = extract_element_data(parse_html(html))
        assert records["div_swatch red_sw1"] == {
            "text": "Red",
            "data": {"data-color": "red"},
            "tagName": "div",
            "className": "swatch red",
            "id": "sw1",
        }

    def test_text_content_skips_scripts(self):
        html = "<body><p id='d'>Soft cotton</p><script>var x = 1;</script></body>"
        texts = extract_text_content(parse_html(html))
        assert texts["p_no-class_d"] == "Soft cotton"
        assert not any(key.startswith("script_") for key in texts)
